"""Exceptions shared across the NER package.

- NerError        : base class
- ModelNotLoaded  : an operation needs a trained or loaded model
- ModelLoadError  : a model file could not be read or decoded
"""


class NerError(RuntimeError):
    """Base class for tagger errors."""
    pass


class ModelNotLoaded(NerError):
    """No model has been trained or loaded yet."""
    pass


class ModelLoadError(NerError, IOError):
    """Reading or decoding a persisted model failed."""
    pass
