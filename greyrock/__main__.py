from greyrock.endpoints import main

main()
