from dataclasses import dataclass, field
from typing import List, Tuple


@dataclass(frozen=True)
class Keypoint:
    x: float
    y: float
    score: float


@dataclass
class Detection:
    """
    Single pose detection in source-image pixels.

    The box is stored top-left + size; keypoints keep their own confidence,
    independent from the box score.
    """

    x: float
    y: float
    width: float
    height: float
    score: float
    keypoints: List[Keypoint] = field(default_factory=list)

    @property
    def bbox(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.width, self.height

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x + self.width, self.y + self.height
