from homeswift_api.server import main

main()
