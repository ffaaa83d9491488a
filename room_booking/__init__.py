from .booking import TimeSlot, can_reserve, has_time_overlap
from .config import AppConfig, BookingRules, OperatingWindow, StorageSettings, load_config
from .conflicts import check_room_conflict, check_user_conflict, find_room_conflicts, find_user_conflicts
from .errors import (
	BookingError,
	ConfigError,
	ConflictError,
	ConflictKind,
	ExtensionError,
	ExtensionRefusal,
	NotFoundError,
	StorageError,
	ValidationError,
	ValidationReason,
)
from .models import ReservationCandidate, ReservationRecord
from .rules import check_candidate, validate_candidate
from .service import RoomBookingService, SlotAvailability
from .store import ReservationFilter, ReservationStore, StoreSession, open_store
from .yaml_store import YamlReservationStore

__all__ = [
	"TimeSlot",
	"has_time_overlap",
	"can_reserve",
	"AppConfig",
	"BookingRules",
	"OperatingWindow",
	"StorageSettings",
	"load_config",
	"check_room_conflict",
	"check_user_conflict",
	"find_room_conflicts",
	"find_user_conflicts",
	"BookingError",
	"ConfigError",
	"ConflictError",
	"ConflictKind",
	"ExtensionError",
	"ExtensionRefusal",
	"NotFoundError",
	"StorageError",
	"ValidationError",
	"ValidationReason",
	"ReservationCandidate",
	"ReservationRecord",
	"check_candidate",
	"validate_candidate",
	"RoomBookingService",
	"SlotAvailability",
	"ReservationFilter",
	"ReservationStore",
	"StoreSession",
	"open_store",
	"YamlReservationStore",
]
