class ChunkExecError(Exception):
    pass


class InvalidChunk(ChunkExecError, ValueError):
    pass


class InvalidJob(ChunkExecError, ValueError):
    pass


class LifecycleViolation(ChunkExecError, RuntimeError):
    pass
