from hitoview.main import main

main()
