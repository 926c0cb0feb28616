CONDITION_RESULT_KEY = "condition_result"
DEFAULT_MAX_STEPS = 1000
DEFAULT_DELAY_SECONDS = 1.0
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_TIMEZONE = "UTC"

CONDITION_OPERATORS = ("equals", "not_equals", "greater_than", "less_than", "contains")
DATABASE_ACTIONS = ("insert", "update", "delete")
