"""Block archive, transactional store, mempool and fork choice for a BMM sidechain."""

__version__ = "0.13.0"
__all__ = ["archive", "errors", "forkchoice", "lookup", "mempool", "models", "store"]