"""Race strategy predictor: stint/compound search with telemetry calibration."""
