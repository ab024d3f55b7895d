from .autocomplete import Autocomplete
from .input_box import InputBox
from .status import StatusManager

__all__ = ["Autocomplete", "InputBox", "StatusManager"]
