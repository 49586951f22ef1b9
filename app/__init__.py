"""Client facade and status server"""
