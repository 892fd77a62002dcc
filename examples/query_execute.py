from mapepire import sql
import os

server = sql.DaemonServer(
    host=os.getenv("MAPEPIRE_SERVER"),
    user=os.getenv("MAPEPIRE_USER"),
    password=os.getenv("MAPEPIRE_PASSWORD"),
    ignore_unauthorized=True,
)

with sql.connect(server) as job:

    with job.query("SELECT * FROM SAMPLE.EMPLOYEE") as query:
        result = query.execute(rows=10)

        for row in result["data"]:
            print(row)

        while query.state == sql.QueryState.RUN_MORE_DATA_AVAILABLE:
            for row in query.fetch_more()["data"]:
                print(row)
