"""
Load the daemon endpoint from an INI file such as:

    [mapepire]
    SERVER=myibmi.example.com
    PORT=8076
    USER=MYUSER
    PASSWORD=secret
    IGNOREUNAUTHORIZED=false
    CA=/etc/ssl/certs/myibmi-ca.pem
"""

from mapepire import sql
import os

server = sql.DaemonServer.from_ini(
    os.getenv("MAPEPIRE_INI", "mapepire.ini"), section="mapepire"
)

with sql.connect(server) as job:
    print(f"connected as job {job.id}")
    print(job.query_and_run("VALUES CURRENT USER")["data"])
