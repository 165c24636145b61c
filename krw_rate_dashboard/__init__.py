"""USD/KRW 30-day rate trend dashboard."""
