"""
CL commands run through the same job as SQL. A failing CL command is not raised:
the messages it produced come back in the reply's data.
"""

from mapepire import sql
import os

server = sql.DaemonServer(
    host=os.getenv("MAPEPIRE_SERVER"),
    user=os.getenv("MAPEPIRE_USER"),
    password=os.getenv("MAPEPIRE_PASSWORD"),
)

with sql.connect(server) as job:
    result = job.query_and_run("CRTLIB LIB(MYTESTLIB)", {"isClCommand": True})

    print(f"success: {result['success']}")
    for message in result.get("data", []):
        print(message)
