"""Engine components, one module per provisioning stage."""
