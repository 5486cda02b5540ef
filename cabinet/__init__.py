"""Cabinet Scheduler - appointment scheduling for a single-practitioner office"""
