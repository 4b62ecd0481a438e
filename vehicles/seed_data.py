"""
Fixed sample fleet written by the reseed endpoint.
"""

SEED_VEHICLES = [
    {
        "name": "Bus 101",
        "status": "on-road",
        "km": 125000,
        "oilChangeDue": 130000,
        "safetyDue": "2024-12-31",
        "drivers": ["John Smith"],
        "comment": "",
    },
    {
        "name": "Bus 102",
        "status": "in-shop",
        "km": 98000,
        "oilChangeDue": 100000,
        "safetyDue": "2024-10-15",
        "drivers": ["Maria Garcia", "Ahmed Khan"],
        "comment": "Brake pads being replaced",
    },
    {
        "name": "Van 201",
        "status": "on-road",
        "km": 45200,
        "oilChangeDue": 50000,
        "safetyDue": "2025-03-01",
        "drivers": ["Li Wei"],
        "comment": "",
    },
    {
        "name": "Van 202",
        "status": "out-of-service",
        "km": 210400,
        "oilChangeDue": 212000,
        "safetyDue": "2024-06-30",
        "drivers": ["Sam Okafor"],
        "comment": "Awaiting transmission",
    },
    {
        "name": "Truck 301",
        "status": "on-road",
        "km": 315000,
        "oilChangeDue": 320000,
        "safetyDue": "2025-01-20",
        "drivers": ["Priya Patel", "Tom Becker"],
        "comment": "",
    },
]
