from unittest.mock import patch

from app.services.embedder import embed, embed_many, normalize_query


def test_normalize_query():
    assert normalize_query("  Berapa   HARGA\tEye Serum?\n") == "berapa harga eye serum?"


@patch("app.services.embedder._get_model")
def test_embed_requests_unit_vectors(mock_model):
    """Vectors come back as plain lists from a normalized encode."""
    mock_model.return_value.encode.return_value.tolist.return_value = [0.6, 0.8]

    assert embed("serum") == [0.6, 0.8]
    assert mock_model.return_value.encode.call_args.kwargs["normalize_embeddings"] is True


@patch("app.services.embedder._get_model")
def test_embed_many_empty_skips_model(mock_model):
    assert embed_many([]) == []
    mock_model.assert_not_called()
