"""tasklane-sim - Scenario simulator for tasklane."""
