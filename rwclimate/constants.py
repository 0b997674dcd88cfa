# rwclimate/constants.py
"""
Rwanda Climate Explorer Constants and Configuration
Dataset identifiers, scaling factors, palettes and legend metadata
"""

# Boundary collection (Large Scale International Boundaries, simplified)
BOUNDARY_COLLECTION = "USDOS/LSIB_SIMPLE/2017"
BOUNDARY_PROPERTY = "country_na"
DEFAULT_COUNTRY = "Rwanda"

# Satellite datasets
MODIS_LST_COLLECTION = "MODIS/061/MOD11A2"
CHIRPS_PENTAD_COLLECTION = "UCSB-CHG/CHIRPS/PENTAD"

LST_BAND = "LST_Day_1km"
PRECIP_BAND = "precipitation"

# MODIS LST digital number -> degrees Celsius: DN * 0.02 - 273.15
LST_SCALE = 0.02
KELVIN_OFFSET = 273.15

TIME_START = "system:time_start"

# Nominal reduction / export resolutions (meters)
TEMPERATURE_SCALE_M = 1000
RAINFALL_SCALE_M = 5000

EXPORT_MAX_PIXELS = 1e9

DEFAULT_START = "2024-01-01"
DEFAULT_END = "2024-12-31"

TEMPERATURE_PALETTE = [
    '#313695', '#4575B4', '#74ADD1', '#ABD9E9', '#E0F3F8',
    '#FFFFBF', '#FEE090', '#FDAE61', '#F46D43', '#D73027'
]

RAINFALL_PALETTE = ['#FFFFFF', '#D4E8F1', '#2196F3', '#1565C0', '#0D47A1']

TEMPERATURE_VIS = {"min": 25, "max": 45, "palette": TEMPERATURE_PALETTE}
RAINFALL_VIS = {"min": 0, "max": 50, "palette": RAINFALL_PALETTE}
BORDER_VIS = {"color": "red"}

MAP_ZOOM = 6
MAP_BASEMAP = "HYBRID"

# Units used for click readings
TEMPERATURE_UNIT = "°C"
RAINFALL_UNIT = " mm"

# Chart styling (one entry per indicator)
CHART_STYLES = {
    "temperature": {
        "title": "Land Surface Temperature - {country} ({year})",
        "y_title": "Temperature (°C)",
        "color": "#FF5252",
    },
    "rainfall": {
        "title": "Rainfall - {country} ({year})",
        "y_title": "Rainfall (mm)",
        "color": "#2196F3",
    },
}
CHART_X_TITLE = "Date"
CHART_DATE_FORMAT = "%m-%y"
CHART_LINE_WIDTH = 2
CHART_POINT_SIZE = 4

# Legend rows: (color, class name, value range)
TEMPERATURE_LEGEND_ROWS = [
    ('#D73027', 'High', '> 40°C'),
    ('#FDAE61', 'Medium', '30-40°C'),
    ('#313695', 'Low', '< 30°C'),
]

RAINFALL_LEGEND_ROWS = [
    ('#0D47A1', 'High', '> 30mm'),
    ('#2196F3', 'Medium', '10-30mm'),
    ('#D4E8F1', 'Low', '< 10mm'),
]

# Column name mapping: programmatic -> user-friendly
COLUMN_NAMES = {
    'date': 'Date',
    'value': 'Value',
    'indicator': 'Indicator',
    'reducer': 'Spatial Reducer',
    'scale_m': 'Scale (m)',
}

# Column descriptions for data dictionary
COLUMN_DESCRIPTIONS = {
    'date': 'Acquisition date of the source image (system:time_start)',
    'value': 'Region-reduced value of the image band over the study region',
    'indicator': 'Climate indicator (temperature in °C, rainfall in mm)',
    'reducer': 'Spatial reducer applied over the region (mean for temperature, sum for rainfall)',
    'scale_m': 'Nominal resolution of the reduction in meters',
}

# Rate-limit markers treated as retryable by Earth Engine wrappers
RETRYABLE_MARKERS = ("429", "rate", "rateexceeded", "quota", "too many requests", "resourceexhausted")
