#!/usr/bin/env python3
#
# This script shows the different ways in which relvars can be restricted.
#
# Requirements: the lab database from example-01-basic-workflow.py
#
import relvar
from relvar.db import mysql

lab = mysql.connect()
mouse = lab.relvar("lab.mouse")
session = lab.relvar("lab.session")

print("===== Raw SQL and tuple sets: =====\n")
# SQL conditions are inserted verbatim, dictionaries and data frames match their values
young = mouse & "dob > '2023-01-01'"
selected = mouse & [{"mouse_id": 1}, {"mouse_id": 3}]
print(young.where_clause())
print(selected.where_clause())

print("\n===== Semijoins and antijoins: =====\n")
# Other relvars match on all common attributes. The special condition "not" negates the next restriction.
print((mouse & session).sql)
print((mouse & ["not", session & "rig = 'B'"]).sql)

print("\n===== Union and negation: =====\n")
# Unions and negations can only be used as restrictions of other relvars
rig_a_or_unrecorded = mouse & ((session & "rig = 'A'") | ~session)
print(rig_a_or_unrecorded.sql)
print(rig_a_or_unrecorded.fetchn("mouse_id", "ORDER BY mouse_id"))

print("\n===== Restricting in place: =====\n")
# restrict() modifies the relvar itself, all relvars that have been derived from it remain unchanged
males = mouse & {"sex": "M"}
males.restrict("dob IS NOT NULL")
print(males.inspect())

frame = males.fetch("*", as_frame=True)
print(relvar.Relvar.table(lab, "lab.session") & frame)
