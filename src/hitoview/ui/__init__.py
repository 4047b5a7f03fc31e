# Session layer: reactive store, controllers and the AppController facade
