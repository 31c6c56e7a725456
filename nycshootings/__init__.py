"""NYC shooting incidents by borough: population-normalized rates and a Poisson GAM."""
