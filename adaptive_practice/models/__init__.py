"""ORM models. Importing this package registers every table on ``Base.metadata``."""

from adaptive_practice.models.event import ExerciseEvent
from adaptive_practice.models.item import Item, ItemSource
from adaptive_practice.models.mastery import MasteryState
from adaptive_practice.models.preferences import StudentPreferences
from adaptive_practice.models.review import ReviewSchedule
from adaptive_practice.models.topic import Topic, TopicPrerequisite

__all__ = [
    "ExerciseEvent",
    "Item",
    "ItemSource",
    "MasteryState",
    "ReviewSchedule",
    "StudentPreferences",
    "Topic",
    "TopicPrerequisite",
]
