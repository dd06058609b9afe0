"""Attendance verifier package.

Students check in by sharing a location or a geotagged photo over a
messaging webhook. Feature modules (geo, centers, timewindows, evidence,
attendance, ...) hold the engine; a thin Flask controller and MySQL
repositories sit at the edges.
"""
