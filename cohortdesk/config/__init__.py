from .feature_flags import FeatureFlags, feature_flags, get_bool_env, get_int_env
