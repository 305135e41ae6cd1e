"""Loading, cleaning, joining and writing of raw layers."""
