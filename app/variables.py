'''
Define variables used across the entire application
'''


DRIVING_SPEED_MPH = 15.0          # mph — above this a sample counts as driving
AUTO_ARRIVE_MIN_MILES = 0.25      # miles driven before a stop counts as arrival

EARTH_RADIUS_MILES = 3959.0
MPS_TO_MPH = 2.237

LOW_ACCURACY_METERS = 100.0       # samples less precise than this are dropped in high-accuracy mode

# storage keys
JOBS_KEY = "field-jobs"
EXPENSES_KEY = "field-expenses"
STATE_KEY = "field-state"
