class BilevelError(ValueError):
    """
    Base class of the validation errors raised before a model is touched.
    """


class DimensionMismatch(BilevelError):
    pass


class InvalidIndex(BilevelError):
    pass


class BoundInconsistency(BilevelError):
    pass


class UnsupportedComplementarityMethod(BilevelError):
    """
    The complementarity encoding needs a construct the model's solver can not express.
    """
