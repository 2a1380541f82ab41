"""Test that the project setup is working correctly."""

import arena_token_monitor


def test_version() -> None:
    """Test that version is defined."""
    assert arena_token_monitor.__version__ == "0.1.0"


def test_import_modules() -> None:
    """Test that all submodules can be imported."""
    from arena_token_monitor import alerter, detector, ingestor, profiler, storage

    assert ingestor is not None
    assert profiler is not None
    assert detector is not None
    assert alerter is not None
    assert storage is not None
