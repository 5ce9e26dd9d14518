"""UI utilities (validators, id generation, input hashing)."""

from .id_generator import new_run_id, new_short_id
from .schedule_cache import compute_generation_input_hash

__all__ = ["compute_generation_input_hash", "new_run_id", "new_short_id"]
