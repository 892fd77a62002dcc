"""
This example shows how to bind parameters to a statement. Any statement created with
parameters is prepared on the server and executed with the values supplied.
"""

from mapepire import sql
from mapepire.sql.query import QueryOptions
import os

server = sql.DaemonServer(
    host=os.getenv("MAPEPIRE_SERVER"),
    user=os.getenv("MAPEPIRE_USER"),
    password=os.getenv("MAPEPIRE_PASSWORD"),
)

with sql.connect(server, {"libraries": ["SAMPLE"], "naming": "system"}) as job:

    query = job.query(
        "SELECT * FROM EMPLOYEE WHERE WORKDEPT = ? AND SALARY > ?",
        QueryOptions(parameters=["D11", 25000], is_terse_results=True),
    )
    with query:
        result = query.execute()
        print(result["metadata"])
        for row in result["data"]:
            print(row)

    # options can be given as a mapping too
    result = job.query_and_run("VALUES ?", {"parameters": [42]})
    print(result["data"])
