from typing import Optional

from pydantic import BaseModel, ConfigDict


class Mapping(BaseModel):
    """A token and the URL it redirects to"""
    token: str
    target: str

    model_config = ConfigDict(frozen=True)

    def to_line(self) -> str:
        """Journal line for this mapping"""
        return f"{self.token} {self.target}\n"

    @classmethod
    def from_line(cls, line: str) -> Optional["Mapping"]:
        """
        Parse a journal line, splitting at the first space only

        Returns:
            Optional[Mapping]: None if the line has no separator
        """
        parts = line.rstrip("\r\n").split(" ", 1)
        if len(parts) != 2:
            return None
        return cls(token=parts[0], target=parts[1])
