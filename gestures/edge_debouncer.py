"""Rising-edge counter for single-threshold gestures (blink, mouth)."""


class EdgeDebouncer:
    """
    Counts one event per contiguous excursion at or above a threshold.

    There is no hysteresis: a signal chattering around the threshold counts
    once per upward crossing.
    """

    def __init__(self, name: str):
        self.name = name
        self.was_above: bool = False
        self.count: int = 0

    def update(self, value: float, threshold: float, counting: bool = True) -> bool:
        """
        Track the edge state for this frame and return True if an event fired.

        ``was_above`` is updated even when ``counting`` is False, so an
        excursion that started while counting was suppressed is not counted
        once counting resumes.
        """
        is_above = value >= threshold
        fired = counting and is_above and not self.was_above
        if fired:
            self.count += 1
        self.was_above = is_above
        return fired

    def clear_edge(self) -> None:
        self.was_above = False

    def reset(self) -> None:
        self.count = 0
        self.clear_edge()
