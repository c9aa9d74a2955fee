from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from policy import GenerationPolicy, default_policy


class Settings(BaseSettings):
    """
    Runtime configuration for ledger generation.

    Every field can be set through a ``LOYALTY_``-prefixed environment
    variable or a ``.env`` file in the working directory.
    """

    # JSON file overriding the default generation policy
    policy_file: Optional[str] = None

    # Fixed seed makes every customer's synthetic activity reproducible
    random_seed: Optional[int] = None

    # Customers processed concurrently; 1 keeps the batch sequential
    max_workers: int = 1

    # Demo customers created by the seeding CLI
    seed_customer_count: int = 30

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="LOYALTY_",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    def load_policy(self) -> GenerationPolicy:
        if self.policy_file:
            return GenerationPolicy.from_json_file(self.policy_file)
        return default_policy()


@lru_cache()
def get_settings() -> Settings:
    return Settings()
