from typing import Callable, Dict, List, Optional


class ActivityRegistry:
    """Registry of casework activities, keyed "category:name".

    Categories group activities by what they act on ("documents", "cases",
    "generation") so a worker can host all of them or a subset.
    """

    _activities: Dict[str, Callable] = {}

    @classmethod
    def register(cls, category: str, name: Optional[str] = None):
        """Decorator registering an activity under a category."""
        def decorator(activity_func):
            key = f"{category}:{name or activity_func.__name__}"
            existing = cls._activities.get(key)
            if existing is not None and existing is not activity_func:
                raise ValueError(f"Activity {key} is already registered")
            cls._activities[key] = activity_func
            return activity_func
        return decorator

    @classmethod
    def get_all_activities(cls) -> Dict[str, Callable]:
        return dict(cls._activities)

    @classmethod
    def activities_for(cls, category: str) -> List[Callable]:
        prefix = f"{category}:"
        return [func for key, func in cls._activities.items() if key.startswith(prefix)]
