# =============================================================================
# core/models/sim_racing.py - Sim Racing Schemas
# =============================================================================
# Teams are created by one user and hold 2-4 drivers (creator included).
# Leagues accept solo drivers, teams, or both; each registration picks a
# car class and a car number.
# =============================================================================

from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


MIN_TEAM_SIZE = 2
MAX_TEAM_SIZE = 4


class RegistrationType(str, Enum):
    """How a driver enters a league."""
    SOLO = "solo"
    TEAM = "team"


class TeamCreate(BaseModel):
    """
    Body of POST /api/sim-racing/teams.

    `member_emails` lists the other drivers; the creator is added
    automatically and is not counted here.
    """
    name: str = Field(..., max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    member_emails: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Team name is required")
        return value


class LeagueRegistrationCreate(BaseModel):
    """
    Body of POST /api/sim-racing/leagues/{league_id}/register.

    Example:
        {"registration_type": "solo", "car_class": "GT3", "car_number": 44,
         "agreed_to_terms": true}
    """
    registration_type: RegistrationType
    car_class: str = Field(..., max_length=50)
    car_number: int = Field(..., ge=1, le=999)
    team_id: str | None = None
    agreed_to_terms: bool = False

    @field_validator("car_class")
    @classmethod
    def car_class_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("car_class is required")
        return value

    @model_validator(mode="after")
    def check_terms_and_team(self) -> "LeagueRegistrationCreate":
        if not self.agreed_to_terms:
            raise ValueError("You must agree to the league terms")
        if self.registration_type == RegistrationType.TEAM and not self.team_id:
            raise ValueError("team_id is required for team registration")
        return self
