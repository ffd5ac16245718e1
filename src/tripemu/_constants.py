"""Internal constants shared across the library."""

USER_AGENT = "tripemu/1 (+aiohttp)"

# ------------------------------------------------------------------
# Motion derivation
# ------------------------------------------------------------------

EARTH_RADIUS_M = 6_371_000.0
MPS_TO_KMH = 3.6
#: Reference top speed mapped onto the top of the speed band.
EXPECTED_MAX_SPEED_KMH = 200.0

DISTANCE_MIN = 0
DISTANCE_MAX = 9_999_999
SPEED_MIN = 0
SPEED_MAX = 255
HEADING_MIN = 0
HEADING_MAX = 360

# ------------------------------------------------------------------
# Track interpolation
# ------------------------------------------------------------------

MIN_TRACK_POINTS = 2
DEFAULT_ASSUMED_SPEED_MPS = 50.0  # ~180 km/h
DEFAULT_POSITION_NOISE = 0.0001  # degrees, full width of the jitter band

# ------------------------------------------------------------------
# Collector wire protocol
# ------------------------------------------------------------------

TRIP_START_PATH = "/api/v1/vehicle/on"
TRIP_END_PATH = "/api/v1/vehicle/off"
CYCLE_PATH = "/api/v1/vehicle/cycle"

#: GPS condition code: "A" = valid fix.
GPS_CONDITION_VALID = "A"
#: Coordinates travel as integer micro-degrees.
COORDINATE_SCALE = 1_000_000
WIRE_TIME_FORMAT = "%y%m%d%H%M%S"
