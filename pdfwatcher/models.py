"""Data models for PDFWatcher."""

from dataclasses import asdict, dataclass

RECORD_FIELDS = ("date", "type", "title", "url")


@dataclass(frozen=True)
class Record:
    """Represents one document reference found on the remote page."""

    date: str
    type: str
    title: str
    url: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Record":
        """Build a Record from a decoded JSON object.

        Raises:
            ValueError: If the object is not a dict or any field is missing or empty
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object, got {type(data).__name__}")

        values = {}
        for field in RECORD_FIELDS:
            value = data.get(field)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Record field '{field}' is missing or empty")
            values[field] = value

        return cls(**values)
