#!/usr/bin/env python3
#
# This script shows the basic steps that are involved in a typical session with relvar: connecting to the database,
# obtaining relvars for physical tables, combining them and fetching the results. Later examples expand on these concepts
# in more detail.
#
# Requirements: a running MySQL instance with a `lab` database that contains the tables `mouse` and `session` (see
# the CREATE statements below) and a .mysql_connection.config file in the current directory.
#
#   CREATE TABLE mouse (mouse_id INT PRIMARY KEY, sex ENUM('F', 'M') NOT NULL, dob DATE);
#   CREATE TABLE session (mouse_id INT, session_id SMALLINT, rig VARCHAR(8) NOT NULL, duration DOUBLE,
#                         PRIMARY KEY (mouse_id, session_id));
#

# Step 0: imports
# The main relvar package provides access to the Relvar class, the database interaction lives in the db package.
import relvar
from relvar.db import mysql

# Step 1: System setup
lab = mysql.connect(debug=True)
mouse = lab.relvar("lab.mouse")
session = lab.relvar("lab.session")
print(mouse.show())

# Step 2: Building relational expressions
# All operators produce new relvars. Nothing is executed on the database until data is actually fetched.
females = mouse & {"sex": "F"}
recorded_females = females & session
busy_mice = mouse.aggr(session, "count(*)->n_sessions", "sum(duration)->total_duration") & "n_sessions > 1"

# Step 3: Inspecting the compiled statements
print(recorded_females.sql)
print(busy_mice.sql)

# Step 4: Fetching data
print(len(recorded_females), "female mice have been recorded")
for record in busy_mice.fetch("*", "ORDER BY total_duration DESC"):
    print(record)

never_recorded = relvar.Relvar.table(lab, "mouse", schema="lab") - session
print(never_recorded.fetchn("mouse_id"))
