class UnknownKeyError(KeyError):
    pass


class PreconditionError(ValueError):
    pass


class IRReadError(PreconditionError):
    pass


class InvariantViolation(RuntimeError):
    pass
