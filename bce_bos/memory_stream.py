"""In-memory output sink for response bodies."""


class MemoryStream:
    """Writable sink that keeps every chunk written to it.

    Pass an instance as the output_stream of HttpClient.send_request to
    collect the raw response body instead of having it parsed.
    """

    def __init__(self):
        self._chunks: list[bytes] = []

    def write(self, data: bytes) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    @property
    def store(self) -> bytes:
        """Everything written so far."""
        return b"".join(self._chunks)

    def getvalue(self) -> bytes:
        return self.store

    def __len__(self) -> int:
        return sum(len(chunk) for chunk in self._chunks)
