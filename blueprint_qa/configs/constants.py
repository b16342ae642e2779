"""Pipeline constants; the tunable ones have matching settings overrides."""

# Maximum pages accepted per analysis request
MAX_PAGES = 20

# Ratio of not-applicable criteria above which a page is unrecognized content
UNRECOGNIZED_CONTENT_THRESHOLD = 0.7

# Confidence assumed when the model omits one
DEFAULT_CONFIDENCE = 50

# Upstream boxes use a 0-1000 scale, [ymin, xmin, ymax, xmax]
BOX_SCALE = 1000

# Image encoding defaults for the page rasterizer
TARGET_IMAGE_PX = 1280
ANALYSIS_IMAGE_MIME_TYPE = "image/jpeg"
ANALYSIS_IMAGE_QUALITY = 0.82

# Concurrency bound when the core count is unknown
DEFAULT_CPU_COUNT = 4
MIN_PREFERRED_CONCURRENCY = 2
MAX_PREFERRED_CONCURRENCY = 4
