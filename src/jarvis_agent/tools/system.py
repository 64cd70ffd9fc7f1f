import datetime
from ..utils.logging import Icons, pretty_log

async def tool_get_current_time():
    pretty_log("System Time", "Querying local time", icon=Icons.TOOL_CLOCK)
    now = datetime.datetime.now().astimezone()
    return now.strftime("%A, %B %d, %Y at %I:%M:%S %p %Z")
