"""Physical constants and sentinel values shared across the package."""

import numpy as np

# Speed of light in cm/ps
C_LIGHT = 0.029979246

# Inverse of the speed of light in ps/cm
INV_C_LIGHT = 33.356409

# Conversion from ns (collision-level time fields) to ps
NS_TO_PS = 1000.0

# Longitudinal size of the collision diamond in cm
DIAMOND = 6.0

# Event time error (ps) corresponding to the collision diamond
ERR_DIAMOND = DIAMOND * INV_C_LIGHT

# Inverse-variance weight of the collision diamond
WEIGHT_DIAMOND = 1.0 / (ERR_DIAMOND * ERR_DIAMOND)

# Event time error (ps) assigned to tracks with no usable event time
NO_EV_TIME_ERR = 999.0

# Value assigned to any quantity which could not be computed
NOT_COMPUTED = -999.0

# Intrinsic time resolution (ps) used to propagate the beta uncertainty
BETA_TIME_RESOLUTION = 80.0

# Smallest time of flight (ps) for which beta is computed
MIN_TIME_OF_FLIGHT = 1e-3

# Species short names, in species index order
SPECIES_NAMES = ("El", "Mu", "Pi", "Ka", "Pr", "De", "Tr", "He", "Al")

# Particle masses in GeV/c^2, in species index order
SPECIES_MASSES = np.array(
    [
        0.000510998950,
        0.1056583755,
        0.13957039,
        0.493677,
        0.93827208816,
        1.87561294257,
        2.80892113298,
        2.80839160743,
        3.7273794066,
    ]
)

# Particle charges in units of e, in species index order
SPECIES_CHARGES = np.array([1, 1, 1, 1, 1, 1, 1, 2, 2])

# Mass over charge, the quantity which enters the time of flight
SPECIES_MASSES_Z = SPECIES_MASSES / SPECIES_CHARGES
