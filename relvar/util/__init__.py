"""Contains utilities that are not specific to relvar's domain of relational expressions and their compilation."""

import lazy_loader

__getattr__, __dir__, __all__ = lazy_loader.attach_stub(
    __name__,
    __file__,
)
