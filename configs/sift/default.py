# Default configuration for keypoint detection and matching

config = {
    "model": {
        "scales": 3,
        "sigma_0": 1.6,
        "sigma_n": 0.5,  # blur assumed in camera images
        "contrast_threshold": 0.03,  # on 0-255 intensities
        "edge_r": 10.0,
        "max_octaves": None,
    },

    "matching": {
        "ratio_threshold": 0.8,  # Lowe's ratio test on squared distances
        "cross_check": True,
        "top_k": None,
    },

    "preprocessing": {
        "target_long_edge": 400,  # pixels, None keeps the original size
    }
}
