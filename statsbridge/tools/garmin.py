from pydantic import Field

from statsbridge.tooling import NoArgs, ToolArgs, http_tool

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class DateRangeArgs(ToolArgs):
    start_date: str = Field(pattern=DATE_PATTERN, description="Start date in YYYY-MM-DD format")
    end_date: str | None = Field(
        default=None, pattern=DATE_PATTERN, description="End date in YYYY-MM-DD format (optional)"
    )


def _format_range(label: str):
    def format_message(args: dict) -> str:
        end_date = args.get("endDate")
        return f"Fetching Garmin {label} from {args['startDate']}{f' to {end_date}' if end_date else ''}"

    return format_message


# name, display name, path, description, subject
DAILY_TOOLS = [
    ("getGarminUserSummary", "Get Garmin User Summary", "/garmin/user-summary",
     "Get today's activity summary from Garmin Connect", "user summary"),
    ("getGarminSteps", "Get Garmin Steps", "/garmin/steps",
     "Get today's step data from Garmin Connect", "steps data"),
    ("getGarminHeartRate", "Get Garmin Heart Rate", "/garmin/heart-rate",
     "Get today's heart rate data from Garmin Connect", "heart rate data"),
    ("getGarminSleep", "Get Garmin Sleep", "/garmin/sleep",
     "Get today's sleep data from Garmin Connect (filtered to remove detailed metrics)", "sleep data"),
]

for name, display_name, path, description, subject in DAILY_TOOLS:
    http_tool(
        name,
        path,
        display_name=display_name,
        description=description,
        args_model=NoArgs,
        error_prefix=f"Error fetching Garmin {subject}",
        format_message=lambda args, subject=subject: f"Fetching Garmin {subject}",
    )

get_garmin_body_battery = http_tool(
    "getGarminBodyBattery",
    "/garmin/body-battery",
    display_name="Get Garmin Body Battery",
    description="Get body battery data for a date range from Garmin Connect",
    args_model=DateRangeArgs,
    error_prefix="Error fetching Garmin body battery data",
    format_message=_format_range("body battery data"),
)

get_garmin_heart_rate_range = http_tool(
    "getGarminHeartRateRange",
    "/garmin/heart-rate-within-date-range",
    display_name="Get Garmin Heart Rate Range",
    description="Get heart rate data for a date range from Garmin Connect",
    args_model=DateRangeArgs,
    error_prefix="Error fetching Garmin heart rate range data",
    format_message=_format_range("heart rate data"),
)
