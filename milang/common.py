class MiInternalError(Exception): ...
