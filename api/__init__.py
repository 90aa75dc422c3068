"""HTTP interface for the ADC monitor."""
