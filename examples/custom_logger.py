from mapepire import sql
import os
import logging


logger = logging.getLogger("mapepire.sql")
logger.setLevel(logging.DEBUG)
fh = logging.FileHandler("pymapepirelogs.log")
fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(process)d %(thread)d %(message)s"))
fh.setLevel(logging.DEBUG)
logger.addHandler(fh)

with sql.connect(
    {
        "host": os.getenv("MAPEPIRE_SERVER"),
        "user": os.getenv("MAPEPIRE_USER"),
        "password": os.getenv("MAPEPIRE_PASSWORD"),
        "ignoreUnauthorized": True,
    },
    user_agent_entry="custom_logger_example",
) as job:

    print("executing query: SELECT * FROM QSYS2.SYSCOLUMNS")
    try:
        result = job.query_and_run("SELECT * FROM QSYS2.SYSCOLUMNS", rows=1000)
        print(f"rows: {len(result['data'])}")
    except sql.exc.QueryFailedError as e:
        print(f"error: {e.message_with_context()}")
