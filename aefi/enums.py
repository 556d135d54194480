"""Enumerations for the AEFI normalization and aggregation core."""

from __future__ import annotations

from enum import Enum


class Seriousness(Enum):
    """Per-case seriousness classification.

    A single case row can aggregate several AEFI episodes, so the value is
    derived from every "Yes"/"No" sub-value of the ``Serious`` cell rather
    than from a single flag (see ``multi_value.classify_seriousness``).
    """

    SERIOUS = "Serious"
    NOT_SERIOUS = "Not Serious"
    UNKNOWN = "Unknown"

    @classmethod
    def from_string(cls, value: str | None) -> "Seriousness":
        """Convert a label to Seriousness.

        Parameters
        ----------
        value : str | None
            Label ('Serious', 'Not Serious', 'Unknown'), case-insensitive.
            None maps to UNKNOWN.

        Returns
        -------
        Seriousness
            Corresponding enum member.

        Raises
        ------
        ValueError
            If value is not a valid seriousness label.
        """
        if value is None:
            return cls.UNKNOWN

        value_lower = value.strip().lower()
        for member in cls:
            if member.value.lower() == value_lower:
                return member

        raise ValueError(
            f"Unknown seriousness: {value}. "
            f"Valid options: {', '.join(s.value for s in cls)}"
        )


class AgeBand(Enum):
    """Surveillance age stratification, in evaluation order.

    Upper bounds are exclusive and expressed in years; ``UNKNOWN`` collects
    records whose age could not be normalized.
    """

    NEONATE = "0-27 Days"
    INFANT = "28 days to 23 months"
    CHILD = "2-11 Years"
    ADOLESCENT = "12-17 Years"
    ADULT = "18-44 Years"
    MIDDLE_AGED = "45-64 Years"
    ELDERLY = "65+ Years"
    UNKNOWN = "Unknown"

    @classmethod
    def labels(cls) -> list[str]:
        """Return all band labels in display order."""
        return [band.value for band in cls]


class Sex(Enum):
    """Normalized sex values."""

    MALE = "Male"
    FEMALE = "Female"
    UNKNOWN = "Unknown"

    @classmethod
    def from_raw(cls, value: object) -> "Sex":
        """Normalize a free-text sex cell by its first letter.

        Examples
        --------
        >>> Sex.from_raw(" m ")
        <Sex.MALE: 'Male'>
        >>> Sex.from_raw("Female")
        <Sex.FEMALE: 'Female'>
        >>> Sex.from_raw(None)
        <Sex.UNKNOWN: 'Unknown'>
        """
        if not isinstance(value, str):
            return cls.UNKNOWN

        value_lower = value.strip().lower()
        if value_lower.startswith("m"):
            return cls.MALE
        if value_lower.startswith("f"):
            return cls.FEMALE
        return cls.UNKNOWN


class Granularity(Enum):
    """Calendar grouping granularity."""

    YEAR = "year"
    MONTH = "month"

    @classmethod
    def from_string(cls, value: str | None) -> "Granularity":
        """Convert string to Granularity.

        Parameters
        ----------
        value : str | None
            Granularity name ('year', 'month'), or None for default (YEAR).

        Returns
        -------
        Granularity
            Corresponding enum, defaults to YEAR if value is None.

        Raises
        ------
        ValueError
            If value is not a valid granularity.
        """
        if value is None:
            return cls.YEAR

        value_lower = value.lower()
        for granularity in cls:
            if granularity.value == value_lower:
                return granularity

        raise ValueError(
            f"Unknown granularity: {value}. "
            f"Valid options: {', '.join(g.value for g in cls)}"
        )


class TimeBucket(Enum):
    """Gap-in-days bands used by the timeliness charts.

    Each band stores its inclusive upper bound; the last band is open-ended.
    """

    DAYS_0_2 = ("0-2 Days", 2)
    DAYS_3_7 = ("3-7 Days", 7)
    DAYS_8_30 = ("8-30 Days", 30)
    DAYS_31_90 = ("31-90 Days", 90)
    DAYS_91_PLUS = ("91+ Days", float("inf"))

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def upper_bound(self) -> float:
        return self.value[1]

    @classmethod
    def bounds(cls) -> list[float]:
        """Return the ordered inclusive upper bounds."""
        return [bucket.upper_bound for bucket in cls]

    @classmethod
    def labels(cls) -> list[str]:
        """Return the ordered band labels."""
        return [bucket.label for bucket in cls]
